import uvicorn

from groupbuy_payments.config import get_settings

if __name__ == "__main__":
    uvicorn.run("groupbuy_payments.main:app", host="0.0.0.0", port=get_settings().port)
