from .manifest import output_manifest_payload, write_manifest
from .metrics import MetricsWriter
from .text_output import OutputRecord, TextOutputWriter, read_output
