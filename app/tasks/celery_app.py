from celery import Celery
from celery.schedules import crontab

from app.core.config import FUEL_TYPE_CODES, settings

celery = Celery(
    "tasks",
    broker=settings.CELERY_BROKER_URL,  # task queue => redis/1
    backend=settings.CELERY_RESULT_BACKEND,  # backend => redis/2
    include=["app.tasks.tasks"],
)

celery.conf.update(
    # 작업과 결과를 JSON으로 통일
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # 시간대 설정 => 스케줄링에 사용
    timezone="Asia/Seoul",
    enable_utc=True,
    # 같은 갱신 작업이 동시에 두 번 돌지 않도록 워커당 1개씩
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    # 타임아웃 => EV 배치 갱신은 지역 3개(최대 30초씩 + 추가 페이지) 안에 끝나야 함
    task_time_limit=300,
    task_soft_time_limit=240,
    result_expires=3600,
    worker_max_tasks_per_child=1000,
)

# OPINET 가격은 매일 06시 갱신 => 07시부터 유종별 10분 간격 전체 갱신
# 충전소는 05:00~06:59 10분마다 3개 지역씩 (17개 지역 => 6회면 한 바퀴)
beat_schedule = {
    f"refresh-fuel-prices-{fuel_type}": {
        "task": "app.tasks.tasks.refresh_fuel_prices",
        "schedule": crontab(hour=7, minute=10 * i),
        "args": (fuel_type,),
    }
    for i, fuel_type in enumerate(FUEL_TYPE_CODES)
}
beat_schedule["refresh-ev-stations-batch"] = {
    "task": "app.tasks.tasks.refresh_ev_stations_batch",
    "schedule": crontab(hour="5-6", minute="*/10"),
}
celery.conf.beat_schedule = beat_schedule
