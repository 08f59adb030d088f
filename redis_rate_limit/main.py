from redis_rate_limit.core.app_factory import create_app

app = create_app()
