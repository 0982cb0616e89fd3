import pytest

from admission.core.regions import (
    DEFAULT_REGION,
    DEFAULT_REGION_LABEL,
    REGION_KEYS,
    extract_region,
    region_label,
    resolve_region,
)


@pytest.mark.parametrize(
    "address,expected",
    [
        ("경기도 성남시 수정구 위례광장로 100", "wirye"),
        ("경기도 성남시 중원구 광명로 1", "seongnam"),
        ("경기도 성남시 분당구 정자동", "bundang"),
        ("서울특별시 강남구 테헤란로 1", "gangnam"),
        ("서울특별시 서초구 반포대로 2", "seocho"),
        ("서울특별시 송파구 올림픽로 3", "songpa"),
        ("12 Gangnam-gu, Seoul", "gangnam"),
    ],
)
def test_extract_region_from_address(address, expected):
    assert extract_region(address) == expected


def test_bounding_box_fallback_when_address_does_not_match():
    assert extract_region("unknown street", lat=37.48, lng=127.14) == "wirye"
    assert extract_region(None, lat=37.48, lng=127.14) == "wirye"
    assert extract_region("unknown street", lat=35.1, lng=129.0) is None


def test_unmatched_address_resolves_to_default():
    assert extract_region("부산광역시 해운대구") is None
    assert extract_region("") is None
    assert resolve_region("부산광역시 해운대구") == DEFAULT_REGION


def test_default_label_never_leaks_internal_key():
    assert region_label(DEFAULT_REGION) == DEFAULT_REGION_LABEL
    assert region_label(DEFAULT_REGION) != DEFAULT_REGION
    assert region_label(None) == DEFAULT_REGION_LABEL
    assert region_label("wirye") == "Wirye"


def test_every_key_has_a_label():
    for key in REGION_KEYS:
        assert region_label(key) != key
