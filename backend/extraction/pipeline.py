"""
Extraction Pipeline Orchestrator.

Flow (statements): Tokenize → Classify/Reconstruct → Strategy Chain → Dedupe → Categorize → Summarize
Flow (CSV/spreadsheets): Tabular Extractor → Summarize

One synchronous invocation per uploaded document; nothing is cached or
shared between invocations.
"""
import hashlib
import logging
import time
from datetime import datetime
from typing import Any, Dict, Iterator, Optional, Tuple

from .assisted import ServiceAssistedExtractor
from .categorize import Categorizer
from .config import Config
from .dedupe import deduplicate
from .errors import ExtractionError, UnsupportedFileTypeError
from .extract import tokenize
from .providers import ProviderChain
from .schema import FLAG_DUAL_INTERPRETATION, PipelineResult, RawDocument
from .summary import summarize
from .tabular import TabularExtractor
from .transform import ExtractionChain


ProgressFrame = Tuple[int, str, Optional[Dict[str, Any]]]


class StatementPipeline:
    """
    Document dispatcher plus statement extraction pipeline.

    Usage:
        pipeline = StatementPipeline()
        result = pipeline.run(RawDocument(content, "application/pdf"))
    """

    def __init__(self, provider_chain: Optional[ProviderChain] = None):
        self.provider_chain = provider_chain if provider_chain is not None else ProviderChain.from_config()
        self.chain = ExtractionChain(ServiceAssistedExtractor(self.provider_chain))
        self.categorizer = Categorizer(self.provider_chain)
        self.tabular = TabularExtractor(self.categorizer.mapper)

    def run(self, document: RawDocument) -> PipelineResult:
        """Process one document; pipeline-fatal errors propagate as ExtractionError."""
        result = None
        for _, _, res in self._stages(document):
            if res is not None:
                result = res
        return result

    def process(self, document: RawDocument) -> Iterator[ProgressFrame]:
        """
        Process a document through the complete pipeline.
        Yields (percentage, message, result_dict); fatal errors become a failure frame.
        """
        try:
            yield from self._stages(document)
        except ExtractionError as e:
            logging.warning(f"Extraction failed: {e}")
            yield 0, f"Error: {e}", {"success": False, "error": str(e), "stats": {}}

    def _stages(self, document: RawDocument) -> Iterator[ProgressFrame]:
        start_time = time.time()
        media_type = (document.media_type or "").lower()
        if media_type not in Config.ALLOWED_MEDIA_TYPES:
            raise UnsupportedFileTypeError(document.media_type, Config.ALLOWED_MEDIA_TYPES)

        stats: Dict[str, Any] = {
            "document_hash": hashlib.sha256(document.content).hexdigest(),
            "source_file": document.filename,
            "media_type": media_type,
        }

        if media_type in Config.CSV_MEDIA_TYPES | Config.SPREADSHEET_MEDIA_TYPES:
            # ─── Tabular path (0-80%) ───
            yield 10, "Reading table...", None
            transactions = self.tabular.extract(document)
            stats["strategy"] = "tabular"
            yield 80, f"Mapped {len(transactions)} transactions.", None
        else:
            # ─── 1. Tokenize (0-20%) ───
            yield 10, "Reading document...", None
            stream = tokenize(document)
            yield 20, "Document read successful.", None

            # ─── 2. Strategy chain (20-55%) ───
            yield 25, "Extracting transactions...", None
            chain_result = self.chain.extract(stream)
            stats["strategy"] = chain_result.strategy
            stats["strategy_attempts"] = dict(chain_result.attempts)
            yield 55, f"Found {len(chain_result.candidates)} candidate transactions.", None

            # ─── 3. Dedupe (55-60%) ───
            candidates = deduplicate(chain_result.candidates)
            stats["duplicates_removed"] = len(chain_result.candidates) - len(candidates)
            yield 60, "Removed duplicates.", None

            # ─── 4. Categorize (60-80%) ───
            yield 65, "Categorizing transactions...", None
            transactions = self.categorizer.categorize(candidates)
            stats["categorization"] = self.categorizer.get_stats()
            yield 80, "Categorization complete.", None

        # ─── 5. Summarize (80-100%) ───
        summary = summarize(transactions)
        stats["total_rows"] = len(transactions)
        stats["dual_interpretation_count"] = sum(
            1 for tx in transactions if FLAG_DUAL_INTERPRETATION in tx.get("flags", [])
        )
        stats["processing_time_ms"] = (time.time() - start_time) * 1000
        stats["timestamp"] = datetime.now().isoformat()

        logging.info(f"Pipeline done: {len(transactions)} transactions via {stats.get('strategy')}")
        yield 100, "Done", {
            "success": True,
            "transactions": transactions,
            "summary": summary,
            "stats": stats,
        }
