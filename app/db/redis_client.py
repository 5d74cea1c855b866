import json
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import redis
import redis.asyncio as aioredis

from app.core.config import settings

logger = logging.getLogger(__name__)

ERROR_COUNTER_TTL_SECONDS = 86400  # 24시간


class RedisCache:
    """
    분산 캐시 클라이언트 (graceful fallback)

    - 설정이 없으면 모든 연산이 no-op (get => None, set => 무시)
    - redis 오류도 예외를 던지지 않고 안전한 기본값 반환
    - 값은 JSON 직렬화하여 저장
    """

    def __init__(
        self,
        client: Optional[aioredis.Redis] = None,
        pipeline_batch_size: int = settings.REDIS_PIPELINE_BATCH_SIZE,
    ):
        self.redis_client = client
        self.pipeline_batch_size = pipeline_batch_size

    @classmethod
    def from_settings(cls) -> "RedisCache":
        if not settings.REDIS_URL:
            logger.info("REDIS_HOST 미설정 => 분산 캐시 비활성화")
            return cls(None)

        client = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,  # 자동 UTF-8 decoding
            socket_timeout=settings.REDIS_TIMEOUT_SECONDS,
            socket_connect_timeout=settings.REDIS_TIMEOUT_SECONDS,
        )
        logger.info(f"Redis 캐시 초기화: {settings.REDIS_HOST}:{settings.REDIS_PORT}")
        return cls(client)

    @property
    def enabled(self) -> bool:
        return self.redis_client is not None

    async def get(self, key: str) -> Optional[Any]:
        """캐시 조회 => 실패 시 None"""
        if not self.enabled:
            return None
        try:
            data = await self.redis_client.get(key)
            if data is None:
                logger.debug(f"캐시 MISS: {key}")
                return None
            logger.debug(f"캐시 HIT: {key}")
            return json.loads(data)
        except (redis.RedisError, OSError) as e:
            logger.warning(f"Redis GET 실패 (fallback): {key}, 오류: {e}")
            return None
        except json.JSONDecodeError as e:
            logger.error(f"캐시 데이터 파싱 실패: {key}, 오류: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        """캐시 저장 (TTL 초 단위) => 실패해도 무시"""
        if not self.enabled:
            return False
        try:
            await self.redis_client.set(key, json.dumps(value, ensure_ascii=False), ex=ttl)
            return True
        except (redis.RedisError, OSError) as e:
            logger.error(f"Redis SET 실패: {key}, 오류: {e}")
            return False
        except (TypeError, ValueError) as e:
            logger.error(f"캐시 데이터 직렬화 실패: {key}, 오류: {e}")
            return False

    async def mget(self, keys: Sequence[str]) -> List[Optional[Any]]:
        """여러 키 일괄 조회 => keys와 같은 순서, 없는 키는 None"""
        if not self.enabled or not keys:
            return [None] * len(keys)
        try:
            raw_values = await self.redis_client.mget(list(keys))
        except (redis.RedisError, OSError) as e:
            logger.warning(f"Redis MGET 실패 (fallback): {len(keys)}개 키, 오류: {e}")
            return [None] * len(keys)

        results: List[Optional[Any]] = []
        for key, raw in zip(keys, raw_values):
            if raw is None:
                results.append(None)
                continue
            try:
                results.append(json.loads(raw))
            except json.JSONDecodeError as e:
                logger.error(f"캐시 데이터 파싱 실패: {key}, 오류: {e}")
                results.append(None)
        return results

    async def pipeline_set(
        self,
        entries: Iterable[Tuple[str, Any, int]],
        batch_size: Optional[int] = None,
    ) -> int:
        """
        대량 (key, value, ttl) 저장

        batch_size개씩 묶어 pipeline 1회로 전송 (요청 크기 제한 대응)
        실패한 배치는 건너뛰고 성공한 개수만 반환
        """
        entries = list(entries)
        if not self.enabled or not entries:
            return 0

        batch_size = batch_size or self.pipeline_batch_size
        saved = 0

        for start in range(0, len(entries), batch_size):
            batch = entries[start : start + batch_size]
            try:
                pipe = self.redis_client.pipeline(transaction=False)
                for key, value, ttl in batch:
                    pipe.set(key, json.dumps(value, ensure_ascii=False), ex=ttl)
                await pipe.execute()
                saved += len(batch)
            except (redis.RedisError, OSError, TypeError, ValueError) as e:
                logger.error(
                    f"Redis pipeline SET 실패: batch {start // batch_size + 1}, "
                    f"{len(batch)}개 키 (첫 키: {batch[0][0]}), 오류: {e}"
                )

        logger.debug(f"pipeline SET 완료: {saved}/{len(entries)}")
        return saved

    # 에러 카운터 => health 모니터링 전용 (제어 흐름에 사용 X)
    @staticmethod
    def _error_key(category: str, now: Optional[datetime] = None) -> str:
        now = now or datetime.now(timezone.utc)
        return f"errors:{category}:{now.strftime('%Y-%m-%dT%H')}"

    async def increment_error_count(self, category: str) -> None:
        if not self.enabled:
            return
        try:
            key = self._error_key(category)
            pipe = self.redis_client.pipeline(transaction=False)
            pipe.incr(key)
            pipe.expire(key, ERROR_COUNTER_TTL_SECONDS)
            await pipe.execute()
        except (redis.RedisError, OSError) as e:
            logger.debug(f"에러 카운터 증가 실패 (무시): {category}, {e}")

    async def get_error_count(self, category: str) -> int:
        if not self.enabled:
            return 0
        try:
            value = await self.redis_client.get(self._error_key(category))
            return int(value) if value else 0
        except (redis.RedisError, OSError, ValueError) as e:
            logger.debug(f"에러 카운터 조회 실패: {category}, {e}")
            return 0

    async def ping(self) -> bool:
        if not self.enabled:
            return False
        try:
            return bool(await self.redis_client.ping())
        except (redis.RedisError, OSError):
            return False

    async def close(self) -> None:
        if self.redis_client is not None:
            await self.redis_client.aclose()
            logger.info("Redis 연결 종료됨")


def init_redis() -> RedisCache:
    return RedisCache.from_settings()
