"""
페이로드 트리 스캐너

알려진 경로에서 필드를 찾지 못했을 때 임의의 JSON 트리를 너비 우선으로 탐색한다.
얕은 위치의 값이 깊은 위치의 값보다 먼저 선택되며, 한도를 넘으면 예외 없이 None을 반환한다.
"""
import math
import re
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Optional, Pattern, Sequence, Tuple, Union

Primitive = Union[str, int, float, bool]
Accessor = Callable[[Any], Any]


def _get(d: Any, *keys: str, default=None):
    cur = d
    for k in keys:
        if not isinstance(cur, dict) or k not in cur:
            return default
        cur = cur[k]
    return cur


def path(*keys: str) -> Accessor:
    """고정 경로 접근자 생성 - path("data", "status")(evt) == evt["data"]["status"]"""
    def accessor(root: Any) -> Any:
        return _get(root, *keys)

    accessor.__name__ = "path_" + "_".join(keys)
    return accessor


def is_present(value: Any) -> bool:
    """None, 공백 문자열, 빈 컨테이너는 부재 (0 과 False 는 값으로 인정)"""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (dict, list, tuple)):
        return bool(value)
    return True


def first_present(root: Any, accessors: Sequence[Accessor]) -> Any:
    """접근자를 순서대로 시도해 처음으로 존재하는 값을 반환"""
    for accessor in accessors:
        value = accessor(root)
        if is_present(value):
            return value
    return None


@dataclass(frozen=True)
class ScanLimits:
    max_depth: int = 6
    max_breadth_per_array: int = 25
    max_keys_visited: int = 2000


DEFAULT_LIMITS = ScanLimits()


def _as_primitive(value: Any) -> Optional[Primitive]:
    """스칼라 값만 통과 (공백 문자열, None, NaN 은 부재로 간주)"""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return value
    return None


def _walk(root: Any, limits: ScanLimits) -> Iterator[Tuple[Any, Any]]:
    """(key, value) 쌍을 너비 우선 순서로 생성. 리스트 원소의 key 는 None"""
    if not isinstance(root, (dict, list, tuple)):
        return

    queue = deque([(root, 0)])
    seen: set[int] = set()
    visited = 0

    while queue:
        node, depth = queue.popleft()
        node_id = id(node)
        if node_id in seen:
            continue
        seen.add(node_id)

        if isinstance(node, dict):
            entries: Iterable[Tuple[Any, Any]] = list(node.items())
        else:
            entries = [(None, item) for item in node[: limits.max_breadth_per_array]]

        for key, value in entries:
            visited += 1
            if visited > limits.max_keys_visited:
                return
            yield key, value
            if isinstance(value, (dict, list, tuple)) and depth + 1 < limits.max_depth:
                queue.append((value, depth + 1))


def find_by_keys(
    root: Any,
    keys: Iterable[str],
    limits: ScanLimits = DEFAULT_LIMITS,
) -> Optional[Primitive]:
    """키 이름(대소문자 무시)이 일치하는 첫 번째 스칼라 값"""
    wanted = {k.lower() for k in keys}
    if not wanted:
        return None

    for key, value in _walk(root, limits):
        if not isinstance(key, str) or key.lower() not in wanted:
            continue
        found = _as_primitive(value)
        if found is not None:
            return found
    return None


def find_by_pattern(
    root: Any,
    pattern: Union[str, Pattern[str]],
    limits: ScanLimits = DEFAULT_LIMITS,
) -> Optional[str]:
    """정규식과 일치하는 첫 번째 문자열 값"""
    regex = re.compile(pattern) if isinstance(pattern, str) else pattern

    if isinstance(root, str):
        candidate = root.strip()
        return candidate if candidate and regex.search(candidate) else None

    for _, value in _walk(root, limits):
        if not isinstance(value, str):
            continue
        candidate = value.strip()
        if candidate and regex.search(candidate):
            return candidate
    return None
