"""Local validation of write payloads."""

from spendsync.validation.validator import PayloadValidator

__all__ = ["PayloadValidator"]
