from celery import Celery
from celery.utils.log import get_task_logger
from app.core.config import settings
from app.core.logger import logger as app_logger
from app.core.mailer import send_otp_email

logger = get_task_logger(__name__)

# ── Celery app setup ───────────────────────────────────────────────
celery_app = Celery(
    "auth_api",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,

    # Reliability
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    result_expires=3600,

    # ── Redis connection timeouts ──────────────────────────────────
    # Redis failures must fail fast (2s), the request thread is waiting
    redis_socket_connect_timeout=2,
    redis_socket_timeout=2,
    broker_transport_options={
        "max_retries": 2,
        "interval_start": 0,
        "interval_step": 0.5,
        "interval_max": 1,
        "connect_timeout": 2,
    },

    task_routes={
        "auth.send_otp_email": {"queue": "email"},
    },
    task_default_queue="default",
)


# ================================================================
# REDIS HEALTH CHECK
# ================================================================

def is_redis_available() -> bool:
    """
    Fast Redis health check with 2s timeout.
    Used before every dispatch to decide sync vs async execution.
    """
    try:
        import redis
        r = redis.Redis.from_url(
            settings.REDIS_URL,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        r.ping()
        return True
    except Exception:
        return False


# ================================================================
# TASKS
# ================================================================

@celery_app.task(
    name="auth.send_otp_email",
    bind=True,
    max_retries=3,
    default_retry_delay=10,
)
def async_send_otp_email(self, email: str, otp: str, purpose: str) -> bool:
    logger.info(f"[Worker] Sending {purpose} OTP to {email} (attempt {self.request.retries + 1})")
    sent = send_otp_email(email, otp, purpose)
    if not sent and settings.SENDER_EMAIL:
        # Credentials are set, so this was a transport failure worth retrying
        raise self.retry()
    return sent


# ================================================================
# SAFE DISPATCH
# ================================================================

def dispatch_otp_email(email: str, otp: str, purpose: str = "verify") -> None:
    """
    Tries to queue via Celery. If Redis is down, sends synchronously.
    Never raises: OTP issuance already succeeded by the time we get here.
    """
    if is_redis_available():
        try:
            async_send_otp_email.apply_async(
                args=[email, otp, purpose],
                queue="email",
                retry=False,
            )
            app_logger.info(f"[Dispatch] {purpose} OTP email for {email} queued to Celery.")
            return
        except Exception as e:
            app_logger.warning(f"[Dispatch] Celery queue failed for {email}: {e}. Falling back to sync.")

    app_logger.warning(f"[Dispatch] Redis unavailable. Sending {purpose} OTP email synchronously to {email}.")
    try:
        send_otp_email(email, otp, purpose)
    except Exception as e:
        app_logger.error(f"[Dispatch] Sync OTP email to {email} failed: {e}")
