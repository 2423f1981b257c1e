"""Built-in schemas, keyed by the names record types declare."""

from botsync.core.schemas.company import CompanyRecord
from botsync.core.schemas.publication import LicencePublication, Publication

BUILTIN_SCHEMAS = {
    "company-schema": CompanyRecord,
    "publication": Publication,
    "licence-schema": LicencePublication,
}

__all__ = ["BUILTIN_SCHEMAS", "CompanyRecord", "Publication", "LicencePublication"]
