# prep_access/utils/log.py
import time
from datetime import datetime

_T0 = time.time()

def stamp(msg):
    """Timestamped progress line: [HH:MM:SS +elapsed] msg."""
    now = datetime.now().strftime("%H:%M:%S")
    print(f"[{now} +{time.time()-_T0:7.2f}s] {msg}", flush=True)

class Step:
    """Context manager that stamps start, finish and duration of a pipeline stage."""
    def __init__(self, name): self.name = name; self.t0 = None; self.elapsed = None
    def __enter__(self):
        self.t0 = time.time(); stamp(f"▶ {self.name} ...")
        return self
    def __exit__(self, et, ev, tb):
        self.elapsed = time.time() - self.t0
        if et is None:
            stamp(f"✓ {self.name} done in {self.elapsed:.2f}s")
        else:
            stamp(f"✖ {self.name} failed after {self.elapsed:.2f}s: {ev}")
        return False
