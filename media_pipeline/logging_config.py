"""
Centralized Logging Configuration
Structured, request-id keyed logging for the enhancement pipeline
"""
import logging
import sys
import time
from pathlib import Path
from datetime import datetime
from typing import Optional, Iterable

LOGS_DIR = Path(__file__).parent.parent / "logs"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-32s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

COLORS = {
    'DEBUG': '\033[36m',      # Cyan
    'INFO': '\033[32m',       # Green
    'WARNING': '\033[33m',    # Yellow
    'ERROR': '\033[31m',      # Red
    'CRITICAL': '\033[35m',   # Magenta
    'RESET': '\033[0m'
}


class ColoredFormatter(logging.Formatter):
    """Formatter with coloured level names for console output"""

    def format(self, record):
        # Format a copy so file handlers sharing the record keep plain level names
        record = logging.makeLogRecord(record.__dict__)
        levelname = record.levelname
        if levelname in COLORS:
            record.levelname = f"{COLORS[levelname]}{levelname}{COLORS['RESET']}"
        return super().format(record)


def setup_logging(
    level: str = "INFO",
    log_to_file: bool = True,
    log_to_console: bool = True,
    logs_dir: Optional[Path] = None,
) -> None:
    """
    Setup logging configuration for the entire application

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Whether to log to daily files under the logs directory
        log_to_console: Whether to log to stdout
        logs_dir: Override for the logs directory
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logs_dir = logs_dir or LOGS_DIR

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(console_handler)

    today = datetime.now().strftime("%Y-%m-%d")
    if log_to_file:
        logs_dir.mkdir(parents=True, exist_ok=True)
        file_formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

        file_handler = logging.FileHandler(logs_dir / f"app_{today}.log", encoding='utf-8')
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

        error_handler = logging.FileHandler(logs_dir / f"errors_{today}.log", encoding='utf-8')
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(file_formatter)
        root_logger.addHandler(error_handler)

        # Remote provider calls get their own file for cost/debug review
        provider_handler = logging.FileHandler(logs_dir / f"providers_{today}.log", encoding='utf-8')
        provider_handler.setLevel(logging.DEBUG)
        provider_handler.setFormatter(file_formatter)
        for name in ('media_pipeline.providers', 'media_pipeline.vision_service'):
            provider_logger = logging.getLogger(name)
            provider_logger.handlers = [h for h in provider_logger.handlers if not isinstance(h, logging.FileHandler)]
            provider_logger.addHandler(provider_handler)

    # Reduce noise from third-party libraries
    for noisy in ('boto3', 'botocore', 'urllib3', 'httpx', 'httpcore', 'PIL'):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.info("=" * 80)
    logging.info("🏠 MEDIA ENHANCEMENT PIPELINE - LOGGING INITIALIZED")
    logging.info("=" * 80)
    logging.info(f"   Level: {level} | console: {log_to_console} | files: {log_to_file}")
    if log_to_file:
        logging.info(f"   Log directory: {logs_dir}")
        logging.info(f"   Main log: app_{today}.log")
        logging.info(f"   Error log: errors_{today}.log")
        logging.info(f"   Provider log: providers_{today}.log")
    logging.info("=" * 80)


class RequestLogger:
    """Logs one enhancement request; every line carries the request id"""

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.request_id: Optional[str] = None
        self.start_time: Optional[float] = None

    def _log(self, level: int, message: str):
        self.logger.log(level, f"[{self.request_id or '-'}] {message}")

    def info(self, message: str):
        self._log(logging.INFO, message)

    def warning(self, message: str):
        self._log(logging.WARNING, message)

    def error(self, message: str):
        self._log(logging.ERROR, message)

    def start_request(self, request_id: str, operation: str, **kwargs):
        """Log the start of a request"""
        self.request_id = request_id
        self.start_time = time.time()

        self.info("=" * 60)
        self.info(f"📥 REQUEST START | {operation}")
        for key, value in kwargs.items():
            self.info(f"   {key}: {value}")
        self.info("-" * 60)

    def log_analysis(self, context_dict: dict):
        self.info("🔍 CONTENT ANALYSIS")
        for key, value in context_dict.items():
            self.info(f"   {key}: {value}")

    def log_strategy(self, strategy: str, model_id: str, estimated_cost: float):
        """Log the strategy chosen for the remote call"""
        self.info(f"🔀 STRATEGY | {strategy}")
        self.info(f"   Model: {model_id}")
        self.info(f"   Estimated cost: ${estimated_cost:.4f}")

    def log_model_call(self, provider: str, model_id: str):
        self.info(f"🤖 MODEL CALL | {provider} → {model_id}")

    def log_tier_switch(self, from_tier: str, to_tier: str, reason: str):
        """Log a fallback transition between tiers"""
        self.warning(f"↪️ FALLBACK | {from_tier} → {to_tier}")
        self.warning(f"   Reason: {reason}")

    def log_local_processing(self, operations: Iterable[str], details: dict = None):
        """Log local processing steps"""
        self.info("💻 LOCAL PROCESSING")
        self.info(f"   Operations: {', '.join(operations) or 'none'}")
        if details:
            for key, value in details.items():
                self.info(f"   {key}: {value}")

    def end_request(self, success: bool, **kwargs):
        """Log the end of a request"""
        duration_ms = int((time.time() - self.start_time) * 1000) if self.start_time else 0
        status = "✅ SUCCESS" if success else "❌ FAILED"

        self.info("-" * 60)
        self.info(f"📤 REQUEST END | {status}")
        self.info(f"   Duration: {duration_ms}ms")
        for key, value in kwargs.items():
            if isinstance(value, float):
                self.info(f"   {key}: {value:.4f}")
            else:
                self.info(f"   {key}: {value}")
        self.info("=" * 60)


def create_request_logger(name: str) -> RequestLogger:
    return RequestLogger(logging.getLogger(name))
