from pipectl.drivers.http_pipeline_api.http_pipeline_api import HttpClientFactory, HttpPipelineAPI

__all__ = ["HttpClientFactory", "HttpPipelineAPI"]
