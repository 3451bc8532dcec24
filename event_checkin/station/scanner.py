# station/scanner.py
import logging

logger = logging.getLogger('station')


class ScannerError(Exception):
    """The scanning device could not be started."""


class ScannerSession:
    """
    Scopes the scanner to a `with` block.

    Any running scan session is stopped before a new one starts, and the
    workflow refuses scans outside the block. `device` is an optional object
    with start() and stop() (a camera or serial reader driver); keyboard-wedge
    scanners need none.
    """

    def __init__(self, workflow, device=None):
        self.workflow = workflow
        self.device = device
        self.active = False

    def start(self):
        if self.active or self.workflow.scanner_active:
            self.stop()

        if self.device is not None:
            try:
                self.device.start()
            except Exception as e:
                logger.error(f"Scanner failed to start: {e}")
                raise ScannerError(
                    'Scanner could not be started. Check that the device is connected '
                    'and not used by another program, or use manual check-in.'
                ) from e

        self.active = True
        self.workflow.set_scanner_active(True)
        logger.info("Scanner started")
        return self

    def stop(self):
        self.workflow.set_scanner_active(False)
        if self.device is not None:
            self.device.stop()
        if self.active:
            logger.info("Scanner stopped")
        self.active = False

    def submit(self, code, declared_action=None):
        return self.workflow.resolve_scan(code, declared_action)

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False
