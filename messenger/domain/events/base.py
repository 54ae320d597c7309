"""
Domain Event Base Class

Queue wire format은 camelCase이며 sender/receiver는 `from`/`to`로 직렬화됩니다.
"""

from dataclasses import dataclass, asdict, fields
from datetime import datetime
from typing import ClassVar, Dict
import json

from messenger.utils.time_utils import to_naive_utc


def _camel(name: str) -> str:
    head, *tail = name.split('_')
    return head + ''.join(part.title() for part in tail)


@dataclass
class DomainEvent:
    """Domain Event 기본 클래스"""
    timestamp: datetime

    # routing key (queue envelope의 pattern)
    pattern: ClassVar[str] = ""
    # 필드명 → wire key 예외 매핑
    wire_aliases: ClassVar[Dict[str, str]] = {}

    @classmethod
    def _wire_key(cls, name: str) -> str:
        return cls.wire_aliases.get(name, _camel(name))

    def to_dict(self) -> Dict:
        """Event를 wire payload(dict)로 변환"""
        data = {}
        for key, value in asdict(self).items():
            if isinstance(value, datetime):
                # datetime을 ISO 형식 문자열로 변환
                value = value.isoformat()
            data[self._wire_key(key)] = value
        return data

    def to_envelope(self) -> Dict:
        """Queue record value: {"pattern": ..., "data": ...}"""
        return {"pattern": self.pattern, "data": self.to_dict()}

    def to_json(self) -> str:
        """Event를 JSON으로 변환"""
        return json.dumps(self.to_envelope())

    @classmethod
    def from_dict(cls, data: Dict):
        """wire payload에서 Event 복원 (필수 필드 누락 시 KeyError/ValueError)"""
        kwargs = {}
        for f in fields(cls):
            value = data[cls._wire_key(f.name)]
            if f.name == 'timestamp' and isinstance(value, str):
                value = to_naive_utc(datetime.fromisoformat(value.replace('Z', '+00:00')))
            kwargs[f.name] = value
        return cls(**kwargs)
