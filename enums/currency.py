from enum import Enum


class Currency(str, Enum):
    SAR = "SAR"
    AED = "AED"
    KWD = "KWD"
    QAR = "QAR"
    BHD = "BHD"
    OMR = "OMR"
    USD = "USD"
