# shelter/metrics/handlers.py
from shelter.metrics.services import commit_room_stats


def handle_room_closed(room_pk):
    # open → closed 전이 이벤트. 중복 전달돼도 statsCommittedAt 으로 1회만 집계
    commit_room_stats(room_pk)
