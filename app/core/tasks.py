"""
Tareas automáticas y programadas del sistema.
"""
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import logging

logger = logging.getLogger(__name__)


def keep_database_alive(context):
    """
    Ping a la base de datos para que el proveedor no suspenda la instancia
    ni cierre las conexiones ociosas del pool.
    """
    try:
        with context.engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        logger.debug("💓 Keep-alive de la base de datos enviado")
    except SQLAlchemyError as e:
        logger.error(f"❌ Keep-alive de la base de datos falló: {str(e)}")


def start_scheduler(context):
    """
    Iniciar el scheduler de tareas automáticas.
    Se llama al startup de la aplicación.
    """
    interval = context.settings.KEEPALIVE_INTERVAL_SECONDS
    if interval <= 0:
        logger.info("Keep-alive desactivado (KEEPALIVE_INTERVAL_SECONDS=0)")
        return

    scheduler = BackgroundScheduler()
    scheduler.add_job(
        keep_database_alive,
        'interval',
        seconds=interval,
        args=[context],
        id='keep_database_alive',
        name='Ping a la base de datos',
        replace_existing=True
    )
    scheduler.start()
    context.scheduler = scheduler
    logger.info("✅ Scheduler de tareas automáticas iniciado")


def stop_scheduler(context):
    """
    Detener el scheduler de tareas automáticas.
    Se llama al shutdown de la aplicación.
    """
    scheduler = context.scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown()
        logger.info("✅ Scheduler de tareas automáticas detenido")
    context.scheduler = None
