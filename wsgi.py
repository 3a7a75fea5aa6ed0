from __future__ import annotations

import os

from app import create_app


app = create_app()


if __name__ == "__main__":
    cfg = app.config["CFG"]

    os.makedirs(cfg.UPLOAD_DIR, exist_ok=True)
    app.run(host=cfg.HOST, port=cfg.PORT)
