from datetime import datetime
from functools import wraps
from typing import Any, Callable, Dict, Optional

from mxr.utils.logger import get_logger, set_command_context


def format_duration(seconds: float) -> str:
    """초 단위 값을 HH:MM:SS 형태로 변환합니다."""
    seconds = max(0, int(seconds))
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    remaining_seconds = seconds % 60
    return f"{hours:02d}:{minutes:02d}:{remaining_seconds:02d}"


def format_number(value: int) -> str:
    """숫자를 천 단위 구분 기호가 있는 문자열로 반환합니다."""
    return f"{value:,}"


def start(command_name: str) -> Dict[str, Any]:
    """
    CLI 명령 실행 전 호출되는 공통 초기화 함수.

    Args:
        command_name: 실행할 명령 이름 (예: 'scan', 'lookup')

    Returns:
        dict: 시작 시간, 로거 등의 컨텍스트 정보
    """
    # 모든 서브 모듈의 로거가 같은 로그 파일을 쓰도록 전역 컨텍스트 설정
    set_command_context(command_name)

    logger = get_logger(__name__, command=command_name)
    logger.debug(f"====== {command_name} 작업 시작 ======")

    return {
        "start_time": datetime.now(),
        "logger": logger,
        "command_name": command_name,
    }


def end(context: Dict[str, Any], result: Optional[Dict[str, Any]] = None) -> None:
    """
    CLI 명령 실행 후 호출되는 공통 정리 함수.

    Args:
        context: start()에서 반환된 컨텍스트
        result: 명령 함수가 반환한 결과 (선택)
    """
    logger = context.get("logger")
    command_name = context.get("command_name", "unknown")
    elapsed = (datetime.now() - context["start_time"]).total_seconds()

    if result and not result.get("success"):
        logger.error(f"작업 실패: {result.get('error', 'Unknown error')}")
        return
    logger.debug(f"====== {command_name} 작업 종료 ({format_duration(elapsed)}) ======")


def with_command_lifecycle(command_name: str) -> Callable[[Callable[..., Any]], Callable[..., Dict[str, Any]]]:
    """
    CLI 명령 실행 전후 초기화/종료 처리를 담당하는 데코레이터.

    click.ClickException은 그대로 전파해 click이 메시지와 종료 코드를 처리하게 합니다.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Dict[str, Any]]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Dict[str, Any]:
            context = start(command_name)

            result: Dict[str, Any] = {
                "success": False,
                "message": "",
                "stats": {},
                "error": None,
            }

            try:
                func_result = func(*args, **kwargs)

                if isinstance(func_result, dict):
                    result.update(func_result)
                else:
                    result["success"] = True
                    result["message"] = "Success"
            except Exception as exc:
                result["success"] = False
                result["error"] = str(exc)
                raise
            finally:
                end(context, result)

            return result

        return wrapper

    return decorator


__all__ = [
    "format_duration",
    "format_number",
    "start",
    "end",
    "with_command_lifecycle",
]
