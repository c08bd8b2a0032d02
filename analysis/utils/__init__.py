from .data_utils import DataUtils

__all__ = ["DataUtils"]
