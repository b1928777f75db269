import logging

from fastapi import APIRouter, BackgroundTasks, Depends

from warp_server.routes.dependencies import envelope, get_server, require_master_key

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/queues/{name}", dependencies=[Depends(require_master_key)])
def run_queue(name: str, background_tasks: BackgroundTasks, server=Depends(get_server)):
    """Schedule a queue to run after the response is sent (master key only)"""
    queue = server.queues.resolve(name)
    background_tasks.add_task(queue.handler)
    logger.info("Queue %s scheduled", name)
    return envelope({"name": name, "status": "queued"})
