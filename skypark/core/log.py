import logging

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=_FORMAT)
    logging.getLogger("skypark").setLevel(level.upper())


def mask_phone(phone: str) -> str:
    """+996700123456 -> +99670012XXXX (no volcar números completos en logs)."""
    if not isinstance(phone, str) or len(phone) <= 4:
        return "XXXX"
    return f"{phone[:-4]}XXXX"
