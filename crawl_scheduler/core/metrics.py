from prometheus_client import Counter, Gauge, Histogram

# 定时提升统计
PROMOTIONS = Counter(
    "crawl_promotions_total",
    "Ready queue promotions attempted by periodic triggers",
    ["status"],  # status: promoted, empty, invalid, error
)

# 定时触发器异常
TRIGGER_ERRORS = Counter(
    "crawl_trigger_errors_total",
    "Unhandled exceptions raised by periodic triggers",
    ["trigger"],
)

# Worker 每轮循环的结果
WORKER_ITERATIONS = Counter(
    "crawl_worker_iterations_total",
    "Worker loop iterations by outcome",
    ["outcome"],  # outcome: idle, error, missing, skipped, crawled
)

# 爬取耗时分布
CRAWL_DURATION = Histogram(
    "crawl_step_duration_seconds",
    "Time spent executing a single crawl step",
    buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0),
)

# 页面抓取统计
PAGES_FETCHED = Counter(
    "crawl_pages_fetched_total",
    "Pages fetched by the crawl step",
    ["status"],  # status: success, error
)

# 新发现链接
DISCOVERED_LINKS = Counter(
    "crawl_discovered_links_total",
    "Links discovered by the crawl step (before deduplication)",
)

# 队列长度（背压）
QUEUE_SIZE = Gauge(
    "crawl_queue_size",
    "Current number of entries in a work queue",
    ["queue"],  # queue: ready, worker
)

# 已发现 URL 集合大小
DISCOVERED_SET_SIZE = Gauge(
    "crawl_discovered_set_size",
    "Number of URLs in the discovered set",
)

# 事件循环延迟
EVENT_LOOP_LAG = Histogram(
    "crawl_event_loop_lag_seconds",
    "Event loop scheduling lag",
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
)

# 数据库连接池状态
DB_POOL_STATS = Gauge(
    "crawl_db_pool_connections",
    "Database connection pool statistics",
    ["state"],  # state: capacity, available, acquired, overflow
)
