"""Record envelope encoding and decoding for the Live Query Module."""

from .record_codec import (
    RecordFieldMapping,
    GeoRecord,
    DEFAULT_FIELDS,
    encode_record,
    decode_record
)

__all__ = [
    'RecordFieldMapping', 'GeoRecord', 'DEFAULT_FIELDS',
    'encode_record', 'decode_record'
]
