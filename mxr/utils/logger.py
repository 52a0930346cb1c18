import os
import logging
import glob
import threading
from datetime import datetime, timedelta
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# 전역 변수: 현재 실행 중인 명령어 저장
_current_command = None

# 로거 캐시 (스레드 안전)
_logger_cache = {}
_logger_lock = threading.Lock()

_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL
}


def set_command_context(command: str):
    """현재 실행 중인 명령어 컨텍스트 설정"""
    global _current_command
    _current_command = command


def _cleanup_old_logs(logs_dir: str, retention_days: int):
    """
    보관 기간이 지난 로그 파일들을 삭제합니다.

    Args:
        logs_dir: 로그 디렉토리 경로
        retention_days: 보관 일수
    """
    if not os.path.exists(logs_dir):
        return

    cutoff_date = datetime.now() - timedelta(days=retention_days)

    for log_file in glob.glob(os.path.join(logs_dir, "*.log")):
        try:
            file_mtime = datetime.fromtimestamp(os.path.getmtime(log_file))
            if file_mtime < cutoff_date:
                os.remove(log_file)
        except OSError as e:
            print(f"Error deleting log file {log_file}: {e}")


def _get_log_level_char(level: int) -> str:
    """
    로그 레벨을 1자리 문자로 변환합니다.

    Args:
        level: 로그 레벨 (logging.DEBUG, logging.INFO 등)

    Returns:
        로그 레벨 1자리 문자 (D, I, W, E, C)
    """
    level_mapping = {
        logging.DEBUG: 'D',
        logging.INFO: 'I',
        logging.WARNING: 'W',
        logging.ERROR: 'E',
        logging.CRITICAL: 'C'
    }
    return level_mapping.get(level, 'I')


class CustomFormatter(logging.Formatter):
    """커스텀 로그 포맷터"""

    def format(self, record):
        level_char = _get_log_level_char(record.levelno)

        # 타임스탬프 포맷: YYYY-MM-DD HH24:MI:SS.sss
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]

        formatted_message = f"{timestamp} [{level_char}] : {record.getMessage()}"
        if record.exc_info:
            formatted_message = f"{formatted_message}\n{self.formatException(record.exc_info)}"

        return formatted_message


def setup_logger(name: str = None, command: str = None) -> logging.Logger:
    """
    환경변수에서 LOG_LEVEL을 읽어서 로거를 설정합니다.
    LOG_DIR이 지정된 경우에만 파일 출력을 추가합니다.

    Args:
        name: 로거 이름 (기본값: None)
        command: 작업 명령어 (로그 파일명 결정용, 기본값: None, 전역 컨텍스트 사용)

    Returns:
        설정된 로거 객체
    """
    if command is None:
        command = _current_command if _current_command else "run"

    log_level_str = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    log_level = _LOG_LEVELS.get(log_level_str, logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    # 핸들러가 이미 있으면 제거 (중복 방지)
    if logger.handlers:
        logger.handlers.clear()

    formatter = CustomFormatter()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    logs_dir = os.getenv("LOG_DIR", "").strip()
    if logs_dir:
        try:
            os.makedirs(logs_dir, exist_ok=True)
            _cleanup_old_logs(logs_dir, int(os.getenv("LOG_RETENTION_DAYS", "7")))

            # 로그 파일명 생성: {작업명령어}-YYYYMMDD.log
            today = datetime.now().strftime('%Y%m%d')
            log_filepath = os.path.join(logs_dir, f"{command}-{today}.log")

            file_handler = logging.FileHandler(log_filepath, encoding='utf-8')
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except (OSError, ValueError) as e:
            # 파일 핸들러 생성 실패 시 콘솔만 사용
            print(f"Warning: Could not create file handler: {e}")

    # 부모 로거로 전파하지 않음 (중복 출력 방지)
    logger.propagate = False

    return logger


def get_logger(name: str = None, command: str = None) -> logging.Logger:
    """
    로거를 가져옵니다. 스레드 안전하게 캐시된 로거를 반환합니다.

    Args:
        name: 로거 이름 (기본값: None)
        command: 작업 명령어 (로그 파일명 결정용, 기본값: None, 전역 컨텍스트 사용)

    Returns:
        로거 객체
    """
    if command is None:
        command = _current_command if _current_command else "run"

    cache_key = f"{name}:{command}"

    with _logger_lock:
        if cache_key in _logger_cache:
            return _logger_cache[cache_key]

        logger = setup_logger(name, command)
        _logger_cache[cache_key] = logger
        return logger


def null_logger(name: str = "mxr.null") -> logging.Logger:
    """아무것도 출력하지 않는 로거 (테스트 기본값)"""
    logger = logging.getLogger(name)
    if not any(isinstance(handler, logging.NullHandler) for handler in logger.handlers):
        logger.addHandler(logging.NullHandler())
    logger.propagate = False
    return logger
