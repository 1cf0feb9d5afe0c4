from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from flask_mail import Mail

db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
mail = Mail()


def create_app(config_object='plek.config.Config'):
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Extensiones
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    mail.init_app(app)

    from plek.revenuecat import RevenueCatClient
    from plek.yoco import YocoClient
    from plek.suggest import GeminiSuggester

    app.extensions['revenuecat'] = RevenueCatClient.from_config(app.config)
    app.extensions['yoco'] = YocoClient.from_config(app.config)
    app.extensions['suggester'] = GeminiSuggester.from_config(app.config)

    with app.app_context():
        from plek import routes, session
        session.register_jwt_callbacks(jwt)
        app.register_blueprint(routes.api)

        db.create_all()

    return app
