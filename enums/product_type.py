from enum import Enum


class ProductType(str, Enum):
    PART = "part"
    MERCH = "merch"
