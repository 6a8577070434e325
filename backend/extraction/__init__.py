"""
Extraction Package - Bank statement to categorized transactions

Modules:
- extract: PDF/text tokenization into a TextStream
- table: Layout classification and bank-table reconstruction
- transform: Extraction strategy chain (structured, service, regex)
- assisted: Provider-assisted table extraction
- providers: External provider adapters and JSON sanitization
- dedupe: Exact-duplicate removal
- categorize: Provider categorization with keyword rule fallback
- tabular: CSV/spreadsheet column mapping
- summary: Income/expense totals and health score
- pipeline: Main orchestrator
- schema: Record types and vocabularies
"""
from .pipeline import StatementPipeline
from .errors import ExtractionError, UnsupportedFileTypeError, DocumentReadError
from .schema import RawDocument, Transaction, CandidateTransaction, PipelineResult, Category, Direction

__all__ = ['StatementPipeline', 'ExtractionError', 'UnsupportedFileTypeError', 'DocumentReadError',
           'RawDocument', 'Transaction', 'CandidateTransaction', 'PipelineResult', 'Category', 'Direction']
