import logging
import sys
from PySide6.QtWidgets import QApplication
from model.edit_session import EditSession
from view.editor_view import EditorView
from controller.editor_controller import EditorController


def main():
    logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(levelname)s - %(message)s')
    app = QApplication(sys.argv)
    session = EditSession()
    view = EditorView()
    controller = EditorController(session, view)
    view.controller = controller
    view.show()
    if len(sys.argv) > 1:
        controller.open_pdf(sys.argv[1])
    exit_code = app.exec()
    session.close()
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
