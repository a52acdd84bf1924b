"""
Centralized logging for the differential expression workflow.
"""

import logging
import os
from typing import Optional


class Logger:
    """Centralized logging for the differential expression workflow"""

    LOGGER_NAME = "rnaseq_de"
    _configured = False

    def __init__(self, log_file: Optional[str] = None, level: int = logging.INFO):
        """Initialize logger with optional file output"""
        self.logger = logging.getLogger(self.LOGGER_NAME)

        # Handlers are installed once per process; a later log_file is added on top
        if not Logger._configured:
            self.configure(level=level)
        if log_file:
            self.add_file_handler(log_file)

    @classmethod
    def configure(cls, log_file: Optional[str] = None, level: int = logging.INFO) -> None:
        """(Re)install console and optional file handlers"""
        logger = logging.getLogger(cls.LOGGER_NAME)
        logger.setLevel(level)

        # Clear any existing handlers
        logger.handlers.clear()

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(cls._formatter())
        logger.addHandler(console_handler)
        cls._configured = True

        if log_file:
            cls.add_file_handler(log_file)

    @classmethod
    def add_file_handler(cls, log_file: str) -> None:
        logger = logging.getLogger(cls.LOGGER_NAME)
        for handler in logger.handlers:
            if isinstance(
                handler, logging.FileHandler
            ) and handler.baseFilename == os.path.abspath(log_file):
                return
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(cls._formatter())
        logger.addHandler(file_handler)

    @staticmethod
    def _formatter() -> logging.Formatter:
        return logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    def log_step(self, step: str, details: str) -> None:
        """Log a processing step with details"""
        self.logger.info(f"🔍 {step}: {details}")

    def log_error(self, error: Exception, context: str) -> None:
        """Log an error with context"""
        self.logger.error(f"❌ Error in {context}: {str(error)}", exc_info=True)

    def log_warning(self, warning: str) -> None:
        """Log a warning message"""
        self.logger.warning(f"⚠️ {warning}")

    def log_success(self, message: str) -> None:
        """Log a success message"""
        self.logger.info(f"✅ {message}")

    def log_save(self, file_path: str) -> None:
        """Log a file save operation"""
        self.logger.info(f"💾 Saved to: {file_path}")

    def log_matrix_shape(self, matrix_name: str, shape: tuple) -> None:
        """Log matrix shape information"""
        self.logger.info(f"📊 {matrix_name} shape: {shape}")

    def log_threshold(self, threshold_name: str, value: float) -> None:
        """Log threshold information"""
        self.logger.info(f"🎯 {threshold_name}: {value:.4f}")

    def log_statistics(self, stat_name: str, value: float) -> None:
        """Log statistical values"""
        self.logger.info(f"📈 {stat_name}: {value:.6f}")
