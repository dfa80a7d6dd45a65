"""
Logging utilities for Manga Narrator
"""
import traceback
from datetime import datetime
from typing import Optional
from .. import config
from ..core.constants import ERROR_LOG_FILE


def log_error(message: str, context: str = "general", exception: Optional[BaseException] = None) -> None:
    """
    Append error messages to a log file with timestamps for troubleshooting.

    Args:
        message: Error message to log
        context: Context where the error occurred
        exception: Optional exception object
    """
    try:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        log_path = config.application_path / ERROR_LOG_FILE
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "a", encoding="utf-8") as f:
            error_msg = f"[{timestamp}] ({context}) {message}"
            if exception:
                error_msg += f"\n  Exception type: {type(exception).__name__}"
                error_msg += f"\n  Exception details: {str(exception)}"
                tb_str = ''.join(traceback.format_exception(type(exception), exception, exception.__traceback__))
                error_msg += f"\n  Traceback:\n{tb_str}"
            error_msg += "\n"
            f.write(error_msg)
    except OSError:
        # 로그 파일을 쓸 수 없어도 내레이션은 계속
        pass


def print_error(message: str, context: str = "general", exception: Optional[BaseException] = None) -> None:
    """
    Print error message to console and log it to file.
    """
    print(f"✗ [{context}] {message}", flush=True)

    if exception:
        print(f"  Exception type: {type(exception).__name__}", flush=True)
        print(f"  Exception details: {str(exception)}", flush=True)
        log_error(message, context, exception)


def print_warning(message: str, context: str = "general", exception: Optional[BaseException] = None) -> None:
    """
    Print warning message to console.
    """
    print(f"⚠ [{context}] {message}", flush=True)

    if exception:
        print(f"  Exception type: {type(exception).__name__}", flush=True)
        print(f"  Exception details: {str(exception)}", flush=True)
