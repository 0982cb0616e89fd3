from admission.services.training.aggregate import update_training_data_blocks

__all__ = ["update_training_data_blocks"]
