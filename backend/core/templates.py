"""
Built-in dashboard templates.

A template names the fields it needs (`required_fields`) and the charts it
draws in terms of those field keys. Once the user maps keys to dataset
columns, `charts_from_template` turns the definitions into DashboardCharts.
"""

from __future__ import annotations

import uuid
from typing import Dict, List, Optional

from core.models import ChartType, DashboardChart, Template, TemplateChart, TemplateField

ColumnMapping = Dict[str, str]


def _field(key: str, label: str, description: str, type: str) -> TemplateField:
    return TemplateField(key=key, label=label, description=description, type=type)


def _chart(title: str, chart_type: ChartType, dimension_key: str, *measure_keys: str, **extra) -> TemplateChart:
    return TemplateChart(
        title=title,
        chart_type=chart_type,
        dimension_key=dimension_key,
        measure_keys=list(measure_keys),
        **extra,
    )


TEMPLATES: List[Template] = [
    Template(
        id="sales-analytics",
        name="Sales Analytics",
        description=(
            "Analyze sales performance, track revenue, and monitor key sales metrics "
            "across regions and product categories."
        ),
        required_fields=[
            _field("orderDate", "Order Date", "The date when the order was placed.", "time"),
            _field("region", "Region", "Geographical region of the sale.", "dimension"),
            _field("productCategory", "Product Category", "The category of the product sold.", "dimension"),
            _field("salesRevenue", "Sales Revenue", "The total monetary value of the sale.", "measure"),
            _field("unitsSold", "Units Sold", "The number of units sold.", "measure"),
        ],
        charts=[
            _chart("Sales Revenue by Region", ChartType.bar, "region", "salesRevenue"),
            _chart("Sales by Category", ChartType.pie, "productCategory", "salesRevenue"),
            _chart("Sales Trend Over Time", ChartType.line, "orderDate", "salesRevenue"),
        ],
    ),
    Template(
        id="marketing-performance",
        name="Marketing Performance",
        description="Track campaign effectiveness through leads, conversions and cost per acquisition.",
        required_fields=[
            _field("campaignDate", "Campaign Date", "Date of the marketing activity.", "time"),
            _field("channel", "Marketing Channel", "The channel used for the campaign.", "dimension"),
            _field("impressions", "Impressions", "Total number of times the ad was displayed.", "measure"),
            _field("clicks", "Clicks", "Total number of clicks on the ad.", "measure"),
            _field("conversions", "Conversions", "Number of desired actions taken.", "measure"),
        ],
        charts=[
            _chart("Conversions Funnel", ChartType.funnel, "channel", "conversions"),
            _chart("Campaign Performance Over Time", ChartType.area, "campaignDate", "impressions", "clicks"),
        ],
    ),
    Template(
        id="population-analysis",
        name="Population & Census",
        description="Population distribution by area and age, plus indicators such as income.",
        required_fields=[
            _field("censusYear", "Census Year", "The year the data was collected.", "time"),
            _field("geographicArea", "Geographic Area", "The region, state, or city for the data.", "dimension"),
            _field("ageGroup", "Age Group", "The demographic age bracket.", "dimension"),
            _field("totalPopulation", "Total Population", "The total population count.", "measure"),
            _field("medianIncome", "Median Income", "The median household income.", "measure"),
        ],
        charts=[
            _chart("Population by Area", ChartType.treemap, "geographicArea", "totalPopulation"),
            _chart("Demographics Radar", ChartType.radar, "ageGroup", "totalPopulation", "medianIncome"),
            _chart("Population Growth Over Time", ChartType.line, "censusYear", "totalPopulation"),
        ],
    ),
    Template(
        id="public-health-analysis",
        name="Public Health Analysis",
        description="Monitor health indicators and disease trends across populations.",
        required_fields=[
            _field("reportYear", "Report Year", "The year the health data was reported.", "time"),
            _field("location", "Location", "The county, state, or country for the health data.", "dimension"),
            _field("healthIndicator", "Health Indicator", "The specific health metric being measured.", "dimension"),
            _field("indicatorValue", "Indicator Value", "The numeric value of the health indicator.", "measure"),
            _field("populationSize", "Population Size", "The population the indicator applies to.", "measure"),
        ],
        charts=[
            _chart("Indicator Value vs Population", ChartType.scatter, "location", "populationSize", "indicatorValue"),
            _chart("Indicator Trends Over Time", ChartType.line, "reportYear", "indicatorValue"),
        ],
    ),
    Template(
        id="education-statistics",
        name="Education Statistics",
        description="Graduation rates, enrollment numbers and student-teacher ratios by region.",
        required_fields=[
            _field("academicYear", "Academic Year", "The school year for which the data is reported.", "time"),
            _field("schoolDistrict", "School District", "The school district or specific school.", "dimension"),
            _field("studentDemographic", "Student Demographic", "The group of students being analyzed.", "dimension"),
            _field("graduationRate", "Graduation Rate", "The percentage of students who graduate.", "measure"),
            _field("enrollmentCount", "Enrollment Count", "The total number of students enrolled.", "measure"),
        ],
        charts=[
            _chart("Graduation Rate by District", ChartType.bar, "schoolDistrict", "graduationRate"),
            _chart("Enrollment by Demographic", ChartType.pie, "studentDemographic", "enrollmentCount"),
            _chart("Enrollment Trends Over Time", ChartType.area, "academicYear", "enrollmentCount"),
        ],
    ),
    Template(
        id="project-management",
        name="Project Management",
        description="Track tasks and timelines with a Gantt view of the project schedule.",
        required_fields=[
            _field("taskName", "Task Name", "The name or description of the project task.", "dimension"),
            _field("startDate", "Start Date", "The date the task is scheduled to begin.", "time"),
            _field("endDate", "End Date", "The date the task is scheduled to be completed.", "time"),
            _field("status", "Status", "The current status of the task.", "dimension"),
        ],
        charts=[
            _chart("Project Timeline", ChartType.gantt, "taskName", "startDate", "endDate"),
            # text measure: each task counts once
            _chart("Tasks by Status", ChartType.pie, "status", "taskName"),
        ],
    ),
]

_BY_ID: Dict[str, Template] = {t.id: t for t in TEMPLATES}


def get_template(template_id: str) -> Optional[Template]:
    return _BY_ID.get(template_id)


def charts_from_template(template: Template, mapping: ColumnMapping) -> List[DashboardChart]:
    """
    Resolve a template's chart definitions against a field -> column mapping.

    Unmapped measure keys are dropped; charts left without a dimension or
    without any measure are skipped entirely.
    """
    charts: List[DashboardChart] = []
    for idx, chart_def in enumerate(template.charts):
        dimension = mapping.get(chart_def.dimension_key) or ""
        measures = [mapping.get(k) or "" for k in chart_def.measure_keys]
        measures = [m for m in measures if m]
        if not dimension or not measures:
            continue
        charts.append(DashboardChart(
            id=f"chart_{uuid.uuid4().hex[:12]}_{idx}",
            title=chart_def.title,
            chart_type=chart_def.chart_type,
            dimension=dimension,
            dimension2=mapping.get(chart_def.dimension2_key) if chart_def.dimension2_key else None,
            measures=measures,
            is_stacked=chart_def.is_stacked,
            is_donut=chart_def.is_donut,
            kpi_target=chart_def.kpi_target,
            kpi_aggregation=chart_def.kpi_aggregation,
        ))
    return charts
