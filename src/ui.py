"""
User interface module.

This module displays frames and the detector's debug images in OpenCV windows
and handles keyboard controls.
"""

import logging

import cv2


class UserInterface:
    """Display sink and keyboard controls using OpenCV windows."""

    def __init__(self, config=None):
        """Initialize user interface.

        Args:
            config: Configuration dictionary
        """
        self.config = config or {}
        self.logger = logging.getLogger(__name__)

        # Window settings
        self.window_name = "RUNESIGHT"
        self.display_width = self.config.get('display_width', 640)
        self.display_height = self.config.get('display_height', 480)

        # Control flags
        self.show_debug = self.config.get('show_debug_windows', False)
        self.paused = False

        self._debug_windows = set()

    def initialize(self):
        """Initialize user interface.

        Returns:
            bool: True if initialization successful, False otherwise
        """
        try:
            cv2.namedWindow(self.window_name, cv2.WINDOW_NORMAL)
            cv2.resizeWindow(self.window_name, self.display_width, self.display_height)

            self.logger.info(f"UI initialized: {self.display_width}x{self.display_height}")
            return True

        except cv2.error as e:
            self.logger.error(f"UI initialization failed: {e}")
            return False

    def display_frame(self, frame, status=None):
        """Display the main frame with a status line.

        Args:
            frame: BGR frame to display (numpy array)
            status: Optional status text
        """
        if frame is None:
            return

        try:
            self._add_status_text(frame, status)
            cv2.imshow(self.window_name, frame)

        except cv2.error as e:
            self.logger.error(f"Frame display error: {e}")

    def show_debug_image(self, name, image):
        """Show one intermediate pipeline image in its own window."""
        if not self.show_debug or image is None:
            return

        window = f"{self.window_name} - {name}"
        try:
            if window not in self._debug_windows:
                cv2.namedWindow(window, cv2.WINDOW_NORMAL)
                self._debug_windows.add(window)
            cv2.imshow(window, image)

        except cv2.error as e:
            self.logger.error(f"Debug image display error ({name}): {e}")

    def handle_events(self):
        """Handle user input events.

        Returns:
            bool: True to continue running, False to exit
        """
        key = cv2.waitKey(1) & 0xFF

        if key == ord('q') or key == 27:  # 'q' or ESC to quit
            self.logger.info("User requested exit")
            return False

        elif key == ord('d'):  # Toggle debug windows
            self.show_debug = not self.show_debug
            if not self.show_debug:
                self._close_debug_windows()
            self.logger.info(f"Debug windows: {self.show_debug}")

        elif key == ord('p'):  # Pause/resume
            self.paused = not self.paused
            self.logger.info(f"Paused: {self.paused}")

        elif key == ord('h'):
            self._print_help()

        return True

    def _add_status_text(self, frame, status):
        """Add status text overlay to frame."""
        font = cv2.FONT_HERSHEY_SIMPLEX
        y_offset = 20
        if self.paused:
            cv2.putText(frame, "PAUSED", (10, y_offset), font, 0.5, (0, 0, 255), 1)
            y_offset += 20

        if status:
            cv2.putText(frame, status, (10, y_offset), font, 0.5, (0, 255, 255), 1)
            y_offset += 20

        cv2.putText(frame, "Press 'h' for help, 'q' to quit", (10, y_offset),
                    font, 0.5, (0, 255, 0), 1)

    def _close_debug_windows(self):
        for window in self._debug_windows:
            try:
                cv2.destroyWindow(window)
            except cv2.error:
                self.logger.debug(f"Window already closed: {window}")
        self._debug_windows.clear()

    def _print_help(self):
        """Print help information to console."""
        help_text = """
        RUNESIGHT Controls:
        ===================
        q / ESC - Quit application
        d       - Toggle debug image windows
        p       - Pause/Resume
        h       - Show this help
        """
        print(help_text)

    def cleanup(self):
        """Clean up UI resources."""
        try:
            cv2.destroyAllWindows()
            self.logger.info("UI cleaned up")
        except cv2.error as e:
            self.logger.error(f"UI cleanup error: {e}")
