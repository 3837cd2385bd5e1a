from .metadata_extractor import MetadataExtractor, clean_title, extract_metadata
from .structured_data_parser import MetaTags, SchemaOrgParser, get_schema_property

__all__ = [
    "MetadataExtractor",
    "MetaTags",
    "SchemaOrgParser",
    "clean_title",
    "extract_metadata",
    "get_schema_property",
]
