"""Background job functions for RQ worker."""


def send_email_job(to_email, subject, template_key, context=None, **kwargs):
    """Background job to send emails."""
    from sportsfest import create_app

    app = create_app()

    with app.app_context():
        try:
            from sportsfest.services.emailer import send_email
            message = send_email(
                to_email=to_email,
                subject=subject,
                template_key=template_key,
                context=context or {},
                **kwargs
            )
            return message.id
        except Exception as e:
            print(f"Email job failed: {str(e)}")
            raise


def send_daily_digest_job():
    """Background job to email the admin daily digest."""
    from sportsfest import create_app

    app = create_app()

    with app.app_context():
        try:
            from sportsfest.services.analytics import get_daily_digest_stats
            from sportsfest.services.email import send_daily_digest_email

            stats = get_daily_digest_stats()
            sent = send_daily_digest_email(stats)
            print(f"Sent daily digest to {sent} recipients")
            return sent
        except Exception as e:
            print(f"Daily digest job failed: {str(e)}")
            raise


def cleanup_abandoned_orders_job(older_than_hours=24, execute=False):
    """Background job to remove abandoned pending orders."""
    from sportsfest import create_app

    app = create_app()

    with app.app_context():
        try:
            from sportsfest.services.orders import OrderService

            result, error = OrderService.cleanup_abandoned_orders(
                older_than_hours=older_than_hours,
                execute=execute,
            )
            if error:
                raise RuntimeError(error)
            print(f"Abandoned orders: found {result['found']}, deleted {result['deleted']}")
            return result
        except Exception as e:
            print(f"Order cleanup job failed: {str(e)}")
            raise


def retry_failed_emails_job():
    """Background job to retry failed emails."""
    from sportsfest import create_app

    app = create_app()

    with app.app_context():
        try:
            from sportsfest.extensions import db
            from sportsfest.models import EmailMessage, EmailStatus
            from sportsfest.services.emailer import EmailService, EmailerError

            failed_emails = (
                db.session.query(EmailMessage)
                .filter(
                    EmailMessage.status == EmailStatus.FAILED,
                    EmailMessage.retry_count < EmailMessage.max_retries
                )
                .limit(50)  # Process max 50 at a time
                .all()
            )

            service = EmailService()
            retried = 0
            for email_msg in failed_emails:
                try:
                    service.retry_failed_email(email_msg.id)
                    retried += 1
                except EmailerError as e:
                    print(f"Retry of {email_msg.id} failed: {str(e)}")

            print(f"Resent {retried} of {len(failed_emails)} failed emails")
            return retried

        except Exception as e:
            print(f"Retry failed emails job failed: {str(e)}")
            raise
