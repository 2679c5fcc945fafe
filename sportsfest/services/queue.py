"""Queue service for background jobs using RQ."""

import redis
from flask import current_app
from rq import Queue
from rq.job import Job

from sportsfest.services.jobs import (
    cleanup_abandoned_orders_job,
    retry_failed_emails_job,
    send_daily_digest_job,
    send_email_job,
)


class QueueService:
    """Service for managing background job queues."""

    def __init__(self, redis_url=None):
        self.redis_conn = redis.from_url(redis_url or current_app.config.get('REDIS_URL', 'redis://localhost:6379/0'))
        self.email_queue = Queue('email', connection=self.redis_conn)
        self.default_queue = Queue(connection=self.redis_conn)

    def enqueue_email(self, to_email, subject, template_key, context=None, **kwargs):
        """Queue an email to be sent."""
        return self.email_queue.enqueue(
            send_email_job,
            to_email=to_email,
            subject=subject,
            template_key=template_key,
            context=context or {},
            **kwargs
        )

    def enqueue_daily_digest(self):
        return self.default_queue.enqueue(send_daily_digest_job)

    def enqueue_order_cleanup(self, older_than_hours=24, execute=False):
        return self.default_queue.enqueue(
            cleanup_abandoned_orders_job,
            older_than_hours=older_than_hours,
            execute=execute,
        )

    def enqueue_email_retries(self):
        return self.default_queue.enqueue(retry_failed_emails_job)

    def get_job_status(self, job_id):
        """Get the status of a job by ID."""
        try:
            job = Job.fetch(job_id, connection=self.redis_conn)
            return {
                'id': job.id,
                'status': job.get_status(),
                'result': job.result,
                'exc_info': job.exc_info,
                'created_at': job.created_at,
                'started_at': job.started_at,
                'ended_at': job.ended_at,
            }
        except Exception:
            return None

    def get_queue_stats(self):
        """Get queue statistics."""
        return {
            name: {
                'name': name,
                'length': len(queue),
                'failed_count': queue.failed_job_registry.count,
                'scheduled_count': queue.scheduled_job_registry.count,
            }
            for name, queue in (('email', self.email_queue), ('default', self.default_queue))
        }


def get_queue_service() -> QueueService:
    return QueueService()


__all__ = ['QueueService', 'get_queue_service']
