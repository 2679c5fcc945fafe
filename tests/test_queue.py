"""RQ queue wiring; Redis is mocked."""

from unittest.mock import MagicMock, patch

from sportsfest.models import EmailMessage, EmailStatus
from sportsfest.services.email import dispatch_email
from sportsfest.services.jobs import cleanup_abandoned_orders_job, send_email_job
from sportsfest.services.queue import QueueService
from sportsfest.worker import setup_queues


@patch('sportsfest.services.queue.Queue')
@patch('sportsfest.services.queue.redis.from_url')
def test_queue_service_enqueues_jobs(from_url, queue_cls, ctx):
    service = QueueService(redis_url='redis://cache:6379/1')

    from_url.assert_called_once_with('redis://cache:6379/1')
    service.enqueue_email('a@acme.com', 'Hi', 'daily_digest', org_id='org-1')
    service.email_queue.enqueue.assert_called_once_with(
        send_email_job,
        to_email='a@acme.com',
        subject='Hi',
        template_key='daily_digest',
        context={},
        org_id='org-1',
    )

    service.enqueue_order_cleanup(older_than_hours=48, execute=True)
    service.default_queue.enqueue.assert_called_with(cleanup_abandoned_orders_job, older_than_hours=48, execute=True)


def test_dispatch_email_uses_queue_when_enabled(ctx):
    ctx.config['EMAIL_QUEUE_ENABLED'] = True
    queue_service = MagicMock()

    with patch('sportsfest.services.queue.get_queue_service', return_value=queue_service):
        assert dispatch_email('ops@acme.com', 'Digest', 'daily_digest', {'date': '2027-08-16'}) is True

    queue_service.enqueue_email.assert_called_once_with(
        'ops@acme.com', 'Digest', 'daily_digest', {'date': '2027-08-16'}, to_name=None, org_id=None
    )
    assert EmailMessage.query.count() == 0


def test_dispatch_email_reports_queue_failure(ctx):
    ctx.config['EMAIL_QUEUE_ENABLED'] = True

    with patch('sportsfest.services.queue.get_queue_service', side_effect=ConnectionError('redis down')):
        assert dispatch_email('ops@acme.com', 'Digest', 'daily_digest', {}) is False


def test_dispatch_email_sends_inline(ctx):
    context = {'name': 'Ops', 'setup_url': 'https://sportsfest.io/auth/setup-password/abc'}

    assert dispatch_email('ops@acme.com', 'Invite', 'super_admin_invite', context) is True

    message = EmailMessage.query.one()
    assert message.to_email == 'ops@acme.com'
    assert message.status == EmailStatus.SENT
    assert 'setup-password/abc' in message.html_content


def test_dispatch_email_records_render_failures(ctx):
    assert dispatch_email('ops@acme.com', 'Digest', 'daily_digest', {}) is False

    message = EmailMessage.query.one()
    assert message.status == EmailStatus.FAILED
    assert message.error_message


@patch('sportsfest.worker.Queue')
def test_worker_listens_on_email_queue_first(queue_cls):
    queues = setup_queues(MagicMock())

    assert list(queues) == ['email', 'default']
    assert queue_cls.call_args_list[0].args == ('email',)
