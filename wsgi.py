from cdc_attendance import create_app
from config import ProductionConfig

ProductionConfig.validate()
app = create_app(ProductionConfig)

if __name__ == '__main__':
    app.run()
