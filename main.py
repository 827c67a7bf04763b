import logging
import asyncio

from init import init_tables, Session, _engine
from compensation.jobs.payout_scheduler import PayoutScheduler
import config

logger = logging.getLogger(__name__)


async def setup():
    """Инициализация базы данных"""
    init_tables(_engine)
    logger.info("Database tables initialized")


async def start_services():
    """Запуск вспомогательных сервисов"""
    services = []

    scheduler = PayoutScheduler(sessionFactory=Session)
    services.append(asyncio.create_task(
        scheduler.run(),
        name="payout_scheduler"
    ))

    return scheduler, services


async def main():
    """Основная асинхронная функция"""
    services = []
    try:
        await setup()
        scheduler, services = await start_services()
        logger.info("Application setup completed")

        await asyncio.gather(*services)

    except Exception as e:
        logger.error(f"Critical error in main: {e}")
        raise
    finally:
        for task in services:
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass


if __name__ == '__main__':
    try:
        logging.basicConfig(
            level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        logger.info("Планировщик остановлен.")
    except Exception as e:
        logger.critical(f"Unexpected error: {e}")
        raise
