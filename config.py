import os
from dotenv import load_dotenv

# Загрузка .env
load_dotenv()

# База данных
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///compensation.db")

# Логирование
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Лимиты обхода дерева
MAX_TREE_NODES_CHECK = int(os.getenv("MAX_TREE_NODES_CHECK", "20000"))
MAX_PLACEMENT_VISITS = int(os.getenv("MAX_PLACEMENT_VISITS", "100000"))
UNBOUNDED_DEPTH_LIMIT = int(os.getenv("UNBOUNDED_DEPTH_LIMIT", "1000"))
RSP_MAX_LEVELS = int(os.getenv("RSP_MAX_LEVELS", "5"))

# Хранение месячной статистики
MONTHLY_STATS_RETAIN_MONTHS = int(os.getenv("MONTHLY_STATS_RETAIN_MONTHS", "12"))

# Расписание (UTC)
PAYOUT_WEEKDAY = int(os.getenv("PAYOUT_WEEKDAY", "0"))  # 0 = понедельник
PAYOUT_HOUR = int(os.getenv("PAYOUT_HOUR", "0"))
PAYOUT_MINUTE = int(os.getenv("PAYOUT_MINUTE", "5"))
CLEANUP_HOUR = int(os.getenv("CLEANUP_HOUR", "3"))
CLEANUP_MINUTE = int(os.getenv("CLEANUP_MINUTE", "20"))
SCHEDULER_MAX_SLEEP = int(os.getenv("SCHEDULER_MAX_SLEEP", "300"))
