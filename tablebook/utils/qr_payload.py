"""
FPS (Faster Payment System) merchant-presented QR payload encoding.

The payload is a flat string of Tag-Length-Value fields as defined by the
EMV merchant-presented QR layout that HKMA adopted for FPS. The trailing
``63`` field carries a CRC-16/CCITT-FALSE over everything before it,
including its own ``6304`` tag and length.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

PAYLOAD_FORMAT_INDICATOR = "01"
POINT_OF_INITIATION_DYNAMIC = "11"
FPS_SCHEME_IDENTIFIER = "hk.com.hkicl"
CURRENCY_HKD = "344"
COUNTRY_HK = "HK"
CRC_TAG_AND_LENGTH = "6304"

_CENTS = Decimal("0.01")


def crc16_ccitt_false(data: bytes) -> int:
    """CRC-16/CCITT-FALSE: poly 0x1021, init 0xFFFF, MSB first, no final XOR."""
    crc = 0xFFFF
    for byte in data:
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return crc


def tlv(tag: str, value: str) -> str:
    """One field; the length is the UTF-8 byte length as two digits."""
    length = len(value.encode("utf-8"))
    if length > 99:
        raise ValueError(f"TLV value for tag {tag} is {length} bytes, limit is 99")
    return f"{tag}{length:02d}{value}"


def format_amount(amount: Union[Decimal, int, str]) -> str:
    value = Decimal(str(amount)).quantize(_CENTS, rounding=ROUND_HALF_UP)
    if value <= 0:
        raise ValueError("payment amount must be positive")
    return f"{value:.2f}"


def encode_payment_payload(
    payee_id: str,
    amount: Union[Decimal, int, str],
    reference: str,
) -> str:
    """
    Build the FPS payload string for ``amount`` HKD payable to ``payee_id``.

    Deterministic for a given input triple. ``reference`` travels in the
    additional-data template so the payer's bank statement shows it.
    """
    if not payee_id:
        raise ValueError("payee identifier is required")

    merchant_account = tlv("00", FPS_SCHEME_IDENTIFIER) + tlv("02", payee_id)
    additional_data = tlv("01", reference)

    body = "".join(
        (
            tlv("00", PAYLOAD_FORMAT_INDICATOR),
            tlv("01", POINT_OF_INITIATION_DYNAMIC),
            tlv("26", merchant_account),
            tlv("53", CURRENCY_HKD),
            tlv("54", format_amount(amount)),
            tlv("58", COUNTRY_HK),
            tlv("62", additional_data),
            CRC_TAG_AND_LENGTH,
        )
    )
    checksum = crc16_ccitt_false(body.encode("utf-8"))
    return f"{body}{checksum:04X}"


__all__ = ["crc16_ccitt_false", "encode_payment_payload", "format_amount", "tlv"]
