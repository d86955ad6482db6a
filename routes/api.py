from services.image import image_bp
from services.mountains import mountains_bp
from services.admin import admin_bp

ALL_BLUEPRINTS = [image_bp, mountains_bp, admin_bp]
