"""RQ Worker for background job processing."""

import os

import redis
from dotenv import load_dotenv
from rq import Queue, Worker

load_dotenv()


def get_redis_connection():
    """Get Redis connection from environment."""
    redis_url = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    return redis.from_url(redis_url)


def setup_queues(redis_conn):
    """Email first, then everything else."""
    return {
        'email': Queue('email', connection=redis_conn),
        'default': Queue(connection=redis_conn),
    }


def main():
    try:
        redis_conn = get_redis_connection()
        queues = setup_queues(redis_conn)
        worker = Worker(list(queues.values()), connection=redis_conn)

        print("Starting RQ worker...")
        print(f"Listening on queues: {list(queues.keys())}")
        print(f"Redis connection: {redis_conn}")

        worker.work()
    except KeyboardInterrupt:
        print("\nWorker stopped by user")
    finally:
        print("Worker shut down")


if __name__ == '__main__':
    main()
