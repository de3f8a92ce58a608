"""Output formatters for velox datasets."""

from velox.formatters.base import Dataset, Formatter, FormatterRegistry, registry
from velox.formatters.csv import CSVFormatter
from velox.formatters.json import JSONFormatter
from velox.formatters.table import TableFormatter
