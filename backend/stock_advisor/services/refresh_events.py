"""갱신 틱 결과 인프로세스 브로드캐스터 (SSE 구독자별 큐)"""
import asyncio
import json
from typing import AsyncIterator

from loguru import logger
from pydantic import BaseModel


class RefreshEventBroadcaster:
    def __init__(self, max_queue_size: int = 100):
        self.max_queue_size = max_queue_size
        self._subscribers: set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def publish(self, event: BaseModel) -> None:
        """모든 구독자에게 이벤트 전달 (가득 찬 큐는 가장 오래된 이벤트 폐기)"""
        payload = event.model_dump(mode="json")
        for queue in list(self._subscribers):
            if queue.full():
                queue.get_nowait()
                logger.warning("SSE 구독자 큐 포화, 오래된 이벤트 폐기")
            queue.put_nowait(payload)

    async def stream(self, heartbeat_seconds: float = 30.0) -> AsyncIterator[str]:
        """SSE 형식 이벤트 스트림 (이벤트가 없으면 heartbeat 전송)"""
        queue = self.subscribe()
        try:
            yield f"data: {json.dumps({'type': 'connected', 'message': '실시간 연결 성공'})}\n\n"
            count = 0
            while True:
                try:
                    payload = await asyncio.wait_for(queue.get(), timeout=heartbeat_seconds)
                except asyncio.TimeoutError:
                    yield f"data: {json.dumps({'type': 'heartbeat', 'count': count})}\n\n"
                    count += 1
                    continue
                yield f"data: {json.dumps({'type': 'refresh', 'data': payload})}\n\n"
        finally:
            self.unsubscribe(queue)
