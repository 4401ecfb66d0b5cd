from .scan_pipeline import PipelineStats, ScanPipeline, ScanSignal

__all__ = ["PipelineStats", "ScanPipeline", "ScanSignal"]
