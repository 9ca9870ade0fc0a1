"""
Database adapters package.

This package provides the following components:

- column_info: Column metadata normalized from cursors and table reflection
- type_mapping: Resolution of column metadata to universal types
- type_conversion: Value extraction, conforming and parameter preparation

Conversion principles:
1. Database -> Record: the driver's value is extracted by type code, then
   conformed to the declared field schema
2. Record -> Database: values are normalized by TypeConverter, then checked
   against the field schema before binding
"""

from dbrecord.adapters.column_info import *
from dbrecord.adapters.type_mapping import *
from dbrecord.adapters.type_conversion import TypeConverter
from dbrecord.adapters.type_conversion import register_sqlite_adapters
