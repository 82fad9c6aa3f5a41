"""
wbtariffs_pipeline.pipelines — End-to-end pipeline orchestrators.

    from wbtariffs_pipeline.pipelines.tariff_sync import build_pipeline

    pipeline = build_pipeline()
    result = await pipeline.full_sync(date(2025, 2, 25))
    cleanup = await pipeline.cleanup(retention_days=90)
"""
