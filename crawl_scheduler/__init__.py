"""周期爬虫任务调度器。"""

__version__ = "0.1.0"
