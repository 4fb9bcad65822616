from PySide6.QtWidgets import QMessageBox
import fitz  # PyMuPDF


def show_error(parent, message: str):
    """Modal error dialog."""
    QMessageBox.critical(parent, "Error", message)


def pixmap_to_qpixmap(pix: fitz.Pixmap) -> 'QPixmap':
    """fitz.Pixmap -> QPixmap"""
    from PySide6.QtGui import QPixmap, QImage
    fmt = QImage.Format_RGBA8888 if pix.alpha else QImage.Format_RGB888
    # .copy() detaches from fitz memory so the image outlives the pixmap.
    img = QImage(pix.samples, pix.width, pix.height, pix.stride, fmt).copy()
    return QPixmap.fromImage(img)
