"""
Cloud Run 배포 확인용 Streamlit 데모 페이지.

로컬: streamlit run app.py
컨테이너: Dockerfile 의 ENTRYPOINT 참고
"""

import os
import socket

import numpy as np
import pandas as pd
import streamlit as st


st.set_page_config(page_title="Cloud Run Streamlit Demo", page_icon="🚀")

st.title("Hello from Cloud Run 🚀")
st.write(
    "이 페이지가 보인다면 이미지 빌드, Artifact Registry 푸시, "
    "Cloud Run 배포가 모두 끝난 것입니다."
)

name = st.text_input("이름", value="Streamlit")
st.write(f"안녕하세요, {name}!")

points = st.slider("데이터 포인트 수", min_value=10, max_value=500, value=100, step=10)
rng = np.random.default_rng(seed=points)
data = pd.DataFrame(
    rng.standard_normal((points, 3)).cumsum(axis=0),
    columns=["a", "b", "c"],
)
st.line_chart(data)

with st.expander("런타임 정보"):
    # Cloud Run 은 K_SERVICE / K_REVISION 을 주입한다.
    st.json(
        {
            "hostname": socket.gethostname(),
            "service": os.getenv("K_SERVICE", "(local)"),
            "revision": os.getenv("K_REVISION", "(local)"),
            "port": os.getenv("PORT", "8080"),
        }
    )
