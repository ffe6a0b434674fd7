"""
SalesCRM: client pipeline tracking (stage history, timeline, Excel import/export)
"""
__version__ = "1.0.0"
